from split_update.cli import main

main()
