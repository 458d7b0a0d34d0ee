from rmote.cli import main

main()
