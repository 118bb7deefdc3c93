from sheet_shaper.cli import app

if __name__ == "__main__":
    app()
