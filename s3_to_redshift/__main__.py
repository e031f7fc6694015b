from s3_to_redshift.cli import main

if __name__ == '__main__':
    main()
