from neighborhood_history.pipeline import main

main()
