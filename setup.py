from setuptools import find_packages, setup

setup(
    name="photo-share-upload",
    version="0.3.0",
    description="活動照片上傳管線：憑證管理、循序上傳與重複偵測",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.10",
    install_requires=[
        "Pillow",
        "imagehash",
        "piexif",
        "requests",
    ],
    extras_require={
        "heif": ["pillow-heif"],
        "test": ["pytest", "requests-mock"],
    },
    entry_points={
        "console_scripts": [
            "photo-share-upload=photo_share_upload.main:main",
        ],
    },
)
