from setuptools import setup, find_packages

__package_name__ = "bmaforge"
__description__ = "This package parses, evaluates and converts BioModelAnalyzer (BMA) models, translating their arithmetic update functions to and from Boolean networks."

__version__ = open("bmaforge/_version.py", "rt").read().split('\'')[1]

setup(
      name = __package_name__,
      version = __version__,
      description = __description__,
      long_description = __description__,
      
      author = "bmaforge developers",
      
      license = "MIT",
      
      packages = find_packages(include=["bmaforge", "bmaforge.*"]),
      
      classifiers = [
          "Programming Language :: Python :: 3",
      ],
      
      install_requires = [
          "numpy",
          "networkx",
          "pandas",
          "pyeda"
      ],
      
      extras_require = {
          "test": ["pytest"],
      }
)
