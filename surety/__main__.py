from surety.server import main

main()
