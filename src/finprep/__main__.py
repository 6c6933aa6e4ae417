from finprep.cli import app

app()
