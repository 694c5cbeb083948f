from .skin import main

main()
