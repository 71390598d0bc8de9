"""Entry point for running the payroll command line."""

import sys

from hr_payroll.cli import main

if __name__ == "__main__":
    sys.exit(main())
