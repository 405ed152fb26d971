# src/cantorx/__main__.py
"""Allow ``python -m cantorx``."""

from cantorx.app import main

if __name__ == "__main__":
    main()
