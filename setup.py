from setuptools import setup


setup(
    name="talent-desk",
    version="0.1.0",
    description="Spreadsheet imports, roster metrics and workbook export for a talent agency dashboard",
    packages=["talent_desk"],
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
    ],
    entry_points={
        "console_scripts": [
            "talent-desk=talent_desk.cli:main",
        ]
    },
)
