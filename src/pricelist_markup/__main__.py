from pricelist_markup import cli

if __name__ == "__main__":
    cli.app()
