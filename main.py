from song_guesser.cli import main


if __name__ == "__main__":
    main()
