from scheduled_music.cli import main

main()
