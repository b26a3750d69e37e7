from spendwise.cli import main

main()
