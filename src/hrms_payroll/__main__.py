"""Entry point for ``python -m hrms_payroll``."""

import sys

from hrms_payroll.cli import main

if __name__ == "__main__":
    sys.exit(main())
