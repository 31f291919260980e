"""Initialize the ClipGate state store."""

from src.clipgate.config import load_config


def main() -> None:
    config = load_config()
    print(f"State store initialized at {config.database_url}.")


if __name__ == "__main__":
    main()
