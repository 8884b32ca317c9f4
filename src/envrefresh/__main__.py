from envrefresh.cli.main import main

main()
