from setuptools import find_packages, setup

package_name = "dataset_converter"

setup(
    name="bag-dataset-converter",
    version="0.1.0",
    packages=find_packages(include=[package_name, f"{package_name}.*"]),
    py_modules=["dataset_convert"],
    python_requires=">=3.9",
    install_requires=["numpy", "pandas<3", "opencv-python", "pyyaml", "rosbags>=0.11", "tqdm"],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["dataset-convert=dataset_convert:main"]},
    author="SOLAQUA",
    author_email="you@example.com",
    description="Split a recorded bag into per-sensor CSV files and PNG frames",
    license="MIT",
)
