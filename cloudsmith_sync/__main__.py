from cloudsmith_sync.cli import main

main()
