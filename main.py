# main.py

from ec_demo.main import main

if __name__ == '__main__':
    main()
