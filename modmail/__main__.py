from modmail.daemon import main

main()
