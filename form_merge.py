"""CLI shim -- delegates to formmerge.cli.main().

Usage:
    python form_merge.py --config config.json list
    python form_merge.py --config config.json merge <FILE_ID> <FILE_ID>
"""

from formmerge.cli import main

if __name__ == "__main__":
    main()
