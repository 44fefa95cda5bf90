import uvicorn

from tales_analyzer.config import get_settings


def main():
    uvicorn.run("tales_analyzer.main:app", host="0.0.0.0", port=get_settings().port)


if __name__ == "__main__":
    main()
