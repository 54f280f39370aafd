"""
issuetree package entry point.

Allows running issuetree as a module:
    python -m issuetree
"""

from issuetree.cli import main

if __name__ == "__main__":
    main()
