from skybackup.cli.app import main

main()
