"""Run the relay service: python -m cij_link_service"""

from .app import main

if __name__ == '__main__':
    main()
