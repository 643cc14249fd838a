from optigate.services.datafile.cli import main

if __name__ == "__main__":  # pragma: no cover - CLI entry
    main()
