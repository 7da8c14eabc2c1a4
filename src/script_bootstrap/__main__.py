from script_bootstrap.cli import app

app(prog_name="script-bootstrap")
