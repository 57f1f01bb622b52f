"""Allow running the package as a module: python -m vaults_monitor"""

import sys

from vaults_monitor.cli import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
