import logging

from stackfolio.config import LOG_LEVEL
from stackfolio.portfolio_session import PortfolioSession


def main():
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    session = PortfolioSession()

    print("Welcome to Stackfolio")
    print("Type 'quit' to exit.\n")

    print(session.start())

    while True:
        try:
            user_input = input("\n> ")
        except (EOFError, KeyboardInterrupt):
            print()
            break

        print(session.handle_message(user_input))

        if session.state.is_complete():
            break


if __name__ == "__main__":
    main()
