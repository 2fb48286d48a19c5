"""
__main__.py — Permite ejecutar Vitrina como módulo.

    python -m vitrina publish content.json
"""

from vitrina.cli import main

if __name__ == "__main__":
    main()
