"""
Device entry point. Installed as <install_root>/startup.py and tracked as the
supervisor's own file, so self-update replaces it and restarts re-run it.
"""
from script_bootstrap.cli import app

if __name__ == "__main__":
    app(prog_name="startup.py")
