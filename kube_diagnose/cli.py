import argparse
import logging
import sys

import yaml

from kube_diagnose.bulk import analyze_pods_bulk, analyze_services_bulk
from kube_diagnose.cluster import FetchError, KubernetesFetcher
from kube_diagnose.config import Settings
from kube_diagnose.context import build_context, context_namespace, endpoints_for
from kube_diagnose.debug import (
    debug_all_pods,
    debug_all_services,
    debug_pod,
    debug_service,
    describe_fetch_error,
    list_namespaces,
)
from kube_diagnose.engine import analyze_pod, analyze_service
from kube_diagnose.output import FORMATS, output_result

logger = logging.getLogger(__name__)


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kube-diagnose",
        description="Diagnose Kubernetes Pods and Services",
    )

    parser.add_argument("--kubeconfig", default=settings.kubeconfig)
    parser.add_argument("--context", default=settings.context)
    parser.add_argument(
        "--format",
        choices=FORMATS,
        default=settings.output_format,
        help="Output format (text, json, yaml)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=settings.workers,
        help="Parallel analyses for namespace-wide commands",
    )
    parser.add_argument("--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)

    def _namespaced(p):
        p.add_argument("-n", "--namespace", default=settings.namespace)
        return p

    p = _namespaced(sub.add_parser("pod", help="Diagnose one pod"))
    p.add_argument("name")
    _namespaced(sub.add_parser("pods", help="Diagnose all pods in a namespace"))

    p = _namespaced(sub.add_parser("service", help="Diagnose one service"))
    p.add_argument("name")
    _namespaced(sub.add_parser("services", help="Diagnose all services in a namespace"))

    sub.add_parser("namespaces", help="List namespaces")

    p = _namespaced(
        sub.add_parser("file", help="Diagnose manifests on disk (JSON or YAML)")
    )
    target = p.add_mutually_exclusive_group(required=True)
    target.add_argument("--pod", help="Pod manifest (single object or List)")
    target.add_argument("--service", help="Service manifest (single object or List)")
    p.add_argument("--endpoints", help="Endpoints manifest(s) for --service")
    p.add_argument("--pods", help="Pods of the service namespace (file or directory)")
    p.add_argument("--dns-pods", help="kube-dns pods from kube-system")

    return parser


def _run_file(args):
    context = build_context(args)
    namespace = context_namespace(context, args.namespace)

    if args.pod:
        pods = context["pods"]
        if len(pods) == 1:
            return analyze_pod(pods[0])
        return analyze_pods_bulk(namespace, pods, max_workers=args.workers)

    services = context["services"]
    if len(services) == 1:
        return analyze_service(
            services[0],
            endpoints_for(context, services[0]),
            context["namespace_pods"],
            context["dns_pods"],
        )
    return analyze_services_bulk(
        namespace,
        services,
        lambda name: context["endpoints"].get(name),
        context["namespace_pods"],
        context["dns_pods"],
        max_workers=args.workers,
    )


def _run_live(args):
    fetcher = KubernetesFetcher.connect(
        kubeconfig=args.kubeconfig,
        context=args.context,
        request_timeout=args.request_timeout,
    )
    if args.command == "pod":
        return debug_pod(fetcher, args.namespace, args.name)
    if args.command == "pods":
        return debug_all_pods(fetcher, args.namespace, max_workers=args.workers)
    if args.command == "service":
        return debug_service(fetcher, args.namespace, args.name)
    if args.command == "services":
        return debug_all_services(fetcher, args.namespace, max_workers=args.workers)
    return list_namespaces(fetcher)


_RESOURCE_KIND = {"pod": "pod", "pods": "pod", "service": "service", "services": "service"}


def main(argv: list[str] | None = None) -> int:
    try:
        settings = Settings.from_env()
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2
    parser = build_parser(settings)
    args = parser.parse_args(argv)
    args.request_timeout = settings.request_timeout

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "file":
            result = _run_file(args)
        else:
            result = _run_live(args)
    except FetchError as exc:
        logger.debug("Fetch failed: kind=%s status=%s", exc.kind, exc.status)
        print(
            describe_fetch_error(
                exc,
                namespace=getattr(args, "namespace", None),
                kind=_RESOURCE_KIND.get(args.command, "resource"),
                name=getattr(args, "name", None),
            ),
            file=sys.stderr,
        )
        return 1
    except (OSError, yaml.YAMLError) as exc:
        print(f"Failed to read manifest: {exc}", file=sys.stderr)
        return 1

    output_result(result, args.format)
    return 0


if __name__ == "__main__":
    sys.exit(main())
