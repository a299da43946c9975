"""
USB HID继电器控制库安装脚本
"""

from setuptools import setup, find_packages
import pathlib

# 读取README文件
here = pathlib.Path(__file__).parent.resolve()
long_description = (here / "README.md").read_text(encoding="utf-8")

# 读取版本信息（不导入包，避免安装前缺少依赖）
version = {}
with open(here / "src" / "usb_hid_relay" / "__init__.py", encoding="utf-8") as f:
    for line in f:
        if line.startswith("__version__"):
            exec(line, version)
            break

setup(
    name="usb-hid-relay",
    version=version["__version__"],
    description="USB HID继电器控制库",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="USB HID Relay Team",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: System :: Hardware",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
        "Environment :: Console",
    ],
    keywords="usb hid relay switch sainsmart automation",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.8",
    install_requires=[
        "pyusb>=1.2.1",
        "click>=8.0.0",
        "rich>=12.0.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "black>=22.0.0",
            "flake8>=5.0.0",
            "mypy>=0.991",
        ],
        "build": [
            "setuptools>=65.0.0",
            "wheel>=0.37.0",
            "build>=0.8.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "usb-hid-relay=usb_hid_relay.cli:cli",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
