from xubuntu_toolkit.cli import main

main(prog_name="xubuntu-toolkit")
