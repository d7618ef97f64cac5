"""Entrypoint: python -m tfcosign"""

from tfcosign.cli.main import main

if __name__ == "__main__":
    main()
