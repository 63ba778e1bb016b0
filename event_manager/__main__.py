from event_manager.supervisor import main

main()
