"""
CLI entry point, when used as a module: `python -m hellok8s`.

Useful for debugging in the IDEs (use the start-mode "Module", module "hellok8s").
"""
from hellok8s import cli

if __name__ == '__main__':
    cli.main()
