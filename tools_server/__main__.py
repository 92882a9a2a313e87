from tools_server.main import main

main()
