import re

AWS_REGION_ABBREVIATIONS = {
    "us-east-1": "use1",
    "us-east-2": "use2",
    "us-west-1": "usw1",
    "us-west-2": "usw2",
    "af-south-1": "afs1",
    "ap-east-1": "ape1",
    "ap-south-1": "aps1",
    "ap-northeast-1": "apne1",
    "ap-northeast-2": "apne2",
    "ap-northeast-3": "apne3",
    "ap-southeast-1": "apse1",
    "ap-southeast-2": "apse2",
    "ca-central-1": "cac1",
    "eu-central-1": "euc1",
    "eu-west-1": "euw1",
    "eu-west-2": "euw2",
    "eu-west-3": "euw3",
    "eu-north-1": "eun1",
    "eu-south-1": "eus1",
    "me-south-1": "mes1",
    "sa-east-1": "sae1",
    "us-gov-east-1": "usge1",
    "us-gov-west-1": "usgw1",
    "cn-north-1": "cnn1",
    "cn-northwest-1": "cnnw1",
}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def sanitize(name: str) -> str:
    """Replace every character outside ``[A-Za-z0-9_-]`` with ``-``."""
    return _UNSAFE_CHARS.sub("-", name)


def region_abbreviation(region: str) -> str:
    return AWS_REGION_ABBREVIATIONS.get(region.lower(), region.split("-")[0].lower())


def physical_name(team: str, service: str, environment: str, region: str, base_name: str) -> str:
    team = team.strip().lower()
    service = service.strip().lower()
    env = environment.strip().lower()
    return f"{team}-{service}-{env}-{region_abbreviation(region)}-{base_name}".lower()
