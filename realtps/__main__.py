from realtps.main import main

main()
