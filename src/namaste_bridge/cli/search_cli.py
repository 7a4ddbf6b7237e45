"""
Command-line interface for the NAMASTE terminology bridge.

Talks to a running service for searching, translating and inspecting mappings.
"""

import asyncio
import argparse
import sys
from typing import List, Optional

import httpx


class NamasteBridgeCLI:
    """Command-line client for the NAMASTE terminology bridge."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def search(self, query: str, target: str = "icd11", limit: int = 10, include_who: bool = False):
        """
        Search NAMASTE concepts and show their resolved mappings.

        Args:
            query: Search query string
            target: Target vocabulary (icd11, snomed-ct, loinc)
            limit: Maximum number of results
            include_who: Also query the WHO ICD-11 API
        """
        response = await self.client.get(
            "/terminology/search",
            params={"q": query, "target": target, "limit": limit, "include_who": include_who}
        )
        response.raise_for_status()
        data = response.json()

        print(f"\n🔍 Search Results for '{query}' → {target}")
        print(f"Total Results: {data['total_results']}")
        print(f"Aggregate Confidence: {data['aggregate_confidence']:.2f}")
        print(f"Execution Time: {data.get('execution_time_ms') or 0:.2f}ms")
        print("-" * 80)

        for i, result in enumerate(data["results"], 1):
            concept = result["concept"]
            print(f"{i}. {concept['code']} - {concept['display']}")
            if concept.get("category"):
                print(f"   Category: {concept['category']}")
            for candidate in result["candidates"]:
                print(f"     → {candidate['target_system']}:{candidate['target_code']} "
                      f"{candidate.get('target_display') or ''} "
                      f"({candidate['tier']}, confidence: {candidate['confidence_score']:.2f})")
            if result.get("biomedical"):
                biomedical = result["biomedical"]
                print(f"     ⇢ biomedical {biomedical['code']} {biomedical.get('display') or ''}")
            print()

        for concept in data.get("who_matches", []):
            print(f"WHO ICD-11: {concept['code']} - {concept['display']}")

    async def translate(self, system: str, code: str, target: str = "icd11"):
        """
        Translate a concept between systems.

        Args:
            system: Source terminology system (namaste or icd11)
            code: Source concept code
            target: Target vocabulary for NAMASTE sources
        """
        response = await self.client.get(f"/translate/{system}/{code}", params={"target": target})
        response.raise_for_status()
        data = response.json()

        print(f"\n🔄 Translation Results for {system}:{code}")
        print("-" * 80)

        matches = []
        for param in data.get("parameter", []):
            if param["name"] == "message":
                print(param["valueString"])
            elif param["name"] == "match":
                matches.append({part["name"]: part for part in param.get("part", [])})

        if not matches:
            print("No translations found.")
            return

        for i, match in enumerate(matches, 1):
            coding = match["concept"]["valueCoding"]
            print(f"{i}. {coding['system']}|{coding['code']} - {coding.get('display', '')}")
            print(f"   Equivalence: {match['equivalence']['valueCode']}")
            print(f"   Confidence: {match['confidence']['valueDecimal']}")
            print(f"   Method: {match['source']['valueString']}")
            if "evidence" in match:
                print(f"   Evidence: {match['evidence']['valueString']}")
            if "mappingPath" in match:
                print(f"   Bridge: {match['mappingPath']['valueString']}")
            print()

    async def stats(self):
        """Show mapping statistics."""
        response = await self.client.get("/mappings/statistics")
        response.raise_for_status()
        data = response.json()

        print("\n📈 Mapping Statistics")
        print("-" * 40)
        for name, count in data["terminology_systems"].items():
            print(f"{name}: {count}")
        for name, count in data["mappings"].items():
            print(f"{name}: {count}")
        for name, percent in data["coverage"].items():
            print(f"{name}: {percent}%")

    async def health(self):
        """Check service health."""
        response = await self.client.get("/health")
        response.raise_for_status()
        data = response.json()

        print("\n🏥 Service Health Check")
        print("-" * 40)
        print(f"Status: {data['status']}")
        print(f"Service: {data['service']}")
        print(f"Version: {data['version']}")
        print(f"Database: {data['database']}")
        print(f"ICD-11 API: {data['icd11_api']}")

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="NAMASTE terminology bridge CLI")
    parser.add_argument("--base-url", default="http://localhost:8000", help="Service base URL")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Search command
    search_parser = subparsers.add_parser("search", help="Search terminology")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--target", default="icd11", help="Target vocabulary (icd11, snomed-ct, loinc)")
    search_parser.add_argument("--limit", type=int, default=10, help="Maximum results")
    search_parser.add_argument("--who", action="store_true", help="Include WHO ICD-11 API matches")

    # Translate command
    translate_parser = subparsers.add_parser("translate", help="Translate concept")
    translate_parser.add_argument("--system", required=True, help="Source system (namaste or icd11)")
    translate_parser.add_argument("--code", required=True, help="Source code")
    translate_parser.add_argument("--target", default="icd11", help="Target vocabulary for NAMASTE sources")

    subparsers.add_parser("stats", help="Show mapping statistics")
    subparsers.add_parser("health", help="Check service health")
    return parser


async def run(argv: Optional[List[str]] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    """Run one CLI command; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    cli = NamasteBridgeCLI(args.base_url, transport=transport)
    try:
        if args.command == "search":
            await cli.search(args.query, args.target, args.limit, include_who=args.who)
        elif args.command == "translate":
            await cli.translate(args.system, args.code, args.target)
        elif args.command == "stats":
            await cli.stats()
        elif args.command == "health":
            await cli.health()
    except httpx.HTTPStatusError as e:
        print(f"❌ HTTP {e.response.status_code}: {e.response.text}", file=sys.stderr)
        return 1
    except httpx.HTTPError as e:
        print(f"❌ HTTP Error: {e}", file=sys.stderr)
        return 1
    finally:
        await cli.close()
    return 0


def main():
    """Console script entry point."""
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
