from espobuild.cli import cli

cli()
