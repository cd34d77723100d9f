from backupz.cli import main

main()
