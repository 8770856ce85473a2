from snapedit.app import main

main()
