"""Allow ``python -m destiny_gateway``."""

from .startup import main

main()
