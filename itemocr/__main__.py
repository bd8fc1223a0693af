"""
itemocr/__main__.py: Entry point for running CLI as module
Allows: python -m itemocr <command>
"""

from itemocr.cli.main import cli

if __name__ == '__main__':
    cli()
