from src.cli.main import cli

cli()
