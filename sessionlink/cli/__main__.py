from sessionlink.cli.listen import main

main()
