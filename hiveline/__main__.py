from hiveline.cli.app import app

app()
