from fluxy.cli import main

main()
