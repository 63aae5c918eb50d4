from gha.cli import main

main()
